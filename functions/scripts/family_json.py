"""
CLI helper to export a family document to JSON or import one from JSON.

Imported records are normalized before they are written, so hand-edited or
legacy files end up in the same shape the console saves.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.config import get_settings
from backend.dependencies import get_db_client, get_storage_client
from backend.member_editor import image_storage_path
from backend.storage import StorageClient
from shared.family_stats import count_members
from shared.member import Member
from shared.member_convert import member_to_document, normalize_member


def _walk(member: Member | None):
    if member is None:
        return
    yield member
    yield from _walk(member.spouse)
    for child in member.children or []:
        yield from _walk(child)


def download_member_images(
    root: Member, storage: StorageClient, directory: Path
) -> list[str]:
    """Copies every member photo into `directory`; returns the files written."""
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for member in _walk(root):
        if not member.image:
            continue
        try:
            data = storage.get_bytes(image_storage_path(member.image))
        except FileNotFoundError:
            print(f"  > image {member.image} for {member.id} is missing", file=sys.stderr)
            continue
        (directory / member.image).write_bytes(data)
        written.append(member.image)
    return written


def export_family(
    family_id: str, output: Path | None, images_dir: Path | None = None
) -> int:
    settings = get_settings()
    data = get_db_client().get_document(settings.families_collection, family_id)
    if data is None:
        print(f"Family {family_id} not found", file=sys.stderr)
        return 1
    root = normalize_member({"id": family_id, **data}, fallback_id=family_id)
    content = json.dumps(member_to_document(root), indent=2, ensure_ascii=False)
    if output is None:
        print(content)
    else:
        output.write_text(content + "\n", encoding="utf-8")
        print(f"Wrote {count_members(root)} members to {output}")
    if images_dir is not None:
        written = download_member_images(root, get_storage_client(), images_dir)
        print(f"Wrote {len(written)} images to {images_dir}", file=sys.stderr)
    return 0


def import_family(path: Path, family_id: str | None, dry_run: bool) -> int:
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        print(f"{path} does not contain a family record", file=sys.stderr)
        return 1

    root = normalize_member(raw, fallback_id=family_id)
    target_id = family_id or root.id
    if not target_id:
        print("Family id missing; pass --family-id", file=sys.stderr)
        return 1
    if root.id != target_id:
        root = normalize_member({**member_to_document(root), "id": target_id})

    print(f"Importing family {target_id} with {count_members(root)} members")
    if dry_run:
        print(json.dumps(member_to_document(root), indent=2, ensure_ascii=False))
        return 0
    settings = get_settings()
    get_db_client().set_document(
        settings.families_collection, target_id, member_to_document(root)
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Family document import/export")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write a family as JSON")
    export_parser.add_argument("family_id", type=str, help="Family document id")
    export_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file (defaults to stdout)",
    )
    export_parser.add_argument(
        "--images-dir",
        type=Path,
        default=None,
        help="Also copy member photos from storage into this directory",
    )

    import_parser = subparsers.add_parser("import", help="Load a family from JSON")
    import_parser.add_argument("path", type=Path, help="JSON file to import")
    import_parser.add_argument(
        "--family-id",
        type=str,
        default=None,
        help="Override the document id (defaults to the record's id)",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the normalized record without writing it",
    )
    args = parser.parse_args()

    if args.command == "export":
        return export_family(args.family_id, args.output, args.images_dir)
    return import_family(args.path, args.family_id, args.dry_run)


if __name__ == "__main__":
    raise SystemExit(main())
