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


from typing import Optional

from shared.member import Member
from shared.member_ids import numeric_id


def count_members(member: Optional[Member]) -> int:
    """
    Counts the members shown for a family on the overview screen.

    A spouse counts once; a spouse's own children are not counted. Children
    are counted recursively, each with their own spouse.
    """
    if member is None:
        return 0
    total = 1
    if member.spouse is not None:
        total += 1
    for child in member.children or []:
        total += count_members(child)
    return total


def family_sort_key(family_id: str) -> int:
    """Orders families by the number in their id; ids without digits sort first."""
    return numeric_id(family_id) or 0
