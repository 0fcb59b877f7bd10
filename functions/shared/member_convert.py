# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


"""
Helpers to convert persisted family documents into Member instances and back.

Documents use the console's camelCase keys (`spouseObj`); older records may
omit any optional key, carry partially populated nested members, or store
`children` as something other than a list.
"""

from __future__ import annotations

from typing import Any, Optional

from shared.member import Member, MemberStatus

OPTIONAL_TEXT_FIELDS = ("image", "address", "phone", "occupation")


def _get_value(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _to_status(value: Any) -> Optional[MemberStatus]:
    if value == MemberStatus.DECEASED.value:
        return MemberStatus.DECEASED
    return None


def _to_children(value: Any) -> Optional[list[Member]]:
    if not isinstance(value, list):
        return None
    children = [
        normalize_member(child)
        for child in value
        if isinstance(child, (dict, Member))
    ]
    # An empty list and None both mean "no children"; keep one form.
    return children or None


def normalize_member(data: dict | Member, fallback_id: Optional[str] = None) -> Member:
    """
    Recursively coerces a loosely shaped record into a canonical Member.

    Normalizing an already normalized member returns an equal member.
    """
    if isinstance(data, Member):
        data = member_to_document(data)

    member_id = _get_value(data, "id")
    if member_id is None:
        member_id = fallback_id
    name = _get_value(data, "name")
    spouse = _get_value(data, "spouseObj", "spouse_obj", "spouse")

    return Member(
        id=_to_optional_str(member_id) or "",
        name=_to_optional_str(name) or "",
        image=_to_optional_str(_get_value(data, "image")),
        address=_to_optional_str(_get_value(data, "address")),
        phone=_to_optional_str(_get_value(data, "phone")),
        occupation=_to_optional_str(_get_value(data, "occupation")),
        status=_to_status(_get_value(data, "status")),
        # An empty record is still a spouse, only with every field unset.
        spouse=(
            normalize_member(spouse) if isinstance(spouse, (dict, Member)) else None
        ),
        children=_to_children(_get_value(data, "children")),
    )


def member_to_document(member: Member) -> dict:
    """Serializes a member and its whole subtree; every key is always present."""
    return {
        "id": member.id,
        "name": member.name,
        "image": member.image,
        "address": member.address,
        "phone": member.phone,
        "occupation": member.occupation,
        "status": member.status.value if member.status else None,
        "spouseObj": member_to_document(member.spouse) if member.spouse else None,
        "children": (
            [member_to_document(child) for child in member.children]
            if member.children
            else None
        ),
    }
