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


from enum import StrEnum
from dataclasses import dataclass
from typing import List, Optional


class MemberStatus(StrEnum):
    DECEASED = "Deceased"


@dataclass
class Member:
    """A person in a family tree.

    A member exclusively owns its spouse and its children, so a family is a
    tree of values: no member appears in two parent slots. Absent values are
    always None, never a missing attribute or key.
    """

    id: str
    name: str
    image: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    occupation: Optional[str] = None
    status: Optional[MemberStatus] = None
    spouse: Optional["Member"] = None
    children: Optional[List["Member"]] = None


def create_member(
    id: str,
    name: str,
    *,
    image: Optional[str] = None,
    address: Optional[str] = None,
    phone: Optional[str] = None,
    occupation: Optional[str] = None,
    status: Optional[MemberStatus] = None,
    spouse: Optional[Member] = None,
    children: Optional[List[Member]] = None,
) -> Member:
    """Builds a member with every unspecified field set to None."""
    return Member(
        id=id,
        name=name,
        image=image,
        address=address,
        phone=phone,
        occupation=occupation,
        status=status,
        spouse=spouse,
        children=children or None,
    )
