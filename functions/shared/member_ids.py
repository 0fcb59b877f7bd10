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
Member id allocation.

Child ids are numeric strings minted one above the largest number found in
any id of the tree. Spouse ids are the holder's id plus a non-digit marker,
so the two kinds can never collide.
"""

from __future__ import annotations

import re
import threading
from typing import Iterable, Iterator, List, Optional

from shared.member import Member

SPOUSE_ID_SUFFIX = "s"

_NON_DIGITS = re.compile(r"[^0-9]")


def numeric_id(member_id: Optional[str]) -> Optional[int]:
    """Returns the number formed by the digits of an id, or None if it has none."""
    digits = _NON_DIGITS.sub("", member_id or "")
    if not digits:
        return None
    return int(digits)


def collect_member_ids(member: Optional[Member]) -> List[str]:
    """Returns every id in the subtree: the member, its spouse subtree, then children."""
    if member is None:
        return []
    ids = [member.id]
    ids.extend(collect_member_ids(member.spouse))
    for child in member.children or []:
        ids.extend(collect_member_ids(child))
    return ids


class IdRegistry:
    """
    The set of ids in use during one editing session.

    A single registry is shared by every editor of a tree. Ids are only ever
    added: the id of a deleted member stays registered so it is not minted
    again for a new child.
    """

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: List[str] = []
        self._seen: set[str] = set()
        self._lock = threading.RLock()
        for member_id in ids:
            self.register(member_id)

    @classmethod
    def from_member(cls, root: Member) -> "IdRegistry":
        return cls(collect_member_ids(root))

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, member_id: object) -> bool:
        return member_id in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def register(self, member_id: str) -> None:
        with self._lock:
            if member_id in self._seen:
                return
            self._seen.add(member_id)
            self._ids.append(member_id)

    def next_child_id(self) -> str:
        numbers = (numeric_id(member_id) for member_id in list(self._ids))
        max_id = max((n for n in numbers if n is not None), default=0)
        return str(max_id + 1)

    def allocate_child_id(self) -> str:
        """Mints and registers a child id in one step."""
        with self._lock:
            child_id = self.next_child_id()
            self.register(child_id)
            return child_id

    def allocate_spouse_id(self, holder_id: str) -> str:
        with self._lock:
            spouse_id = self.spouse_id_for(holder_id)
            self.register(spouse_id)
            return spouse_id

    def spouse_id_for(self, holder_id: str) -> str:
        return f"{holder_id}{SPOUSE_ID_SUFFIX}"
