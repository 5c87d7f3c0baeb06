"""Request shapes sent to the ECC provisioning service.

Each dataclass maps its Python field names onto the fixed JSON keys the
remote service expects via to_payload().
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Tuple


@dataclass(frozen=True)
class ServerIdentity:
    """Backend system the remote service acts upon on the caller's behalf."""
    host: str
    system_number: str
    client_id: str
    username: str
    password: str
    is_testing_server: bool = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "systemNumber": self.system_number,
            "client": self.client_id,
            "jcoUser": self.username,
            "jcoPassword": self.password,
            "isTestingServer": self.is_testing_server,
        }


@dataclass(frozen=True)
class LockRequest:
    server: ServerIdentity
    username: str

    def to_payload(self) -> Dict[str, Any]:
        return {"server": self.server.to_payload(), "username": self.username}


@dataclass(frozen=True)
class CreateUserRequest:
    server: ServerIdentity
    username: str
    password: str
    first_name: str
    last_name: str
    license_type: str
    parameters: Mapping[str, str] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "server": self.server.to_payload(),
            "username": self.username,
            "password": self.password,
            "firstname": self.first_name,
            "lastname": self.last_name,
            "licenseType": self.license_type,
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class RoleAssignment:
    """Time-bounded grant of a permission group.

    Dates are opaque MM/DD/YYYY strings; the remote service rejects other
    formats, nothing is checked locally.
    """
    group: str
    from_date: str = ""
    to_date: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {"group": self.group, "fromDate": self.from_date, "toDate": self.to_date}


@dataclass(frozen=True)
class AssignGroupsRequest:
    server: ServerIdentity
    username: str
    user_groups: Tuple[RoleAssignment, ...] = ()

    @classmethod
    def build(cls, server: ServerIdentity, username: str, groups: Sequence[RoleAssignment]) -> "AssignGroupsRequest":
        return cls(server=server, username=username, user_groups=tuple(groups))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "server": self.server.to_payload(),
            "username": self.username,
            "userGroups": [group.to_payload() for group in self.user_groups],
        }
