"""Built-in policy for the file management service.

Roles (highest -> lowest privilege):
    admin   -- everything, including API key and member management
    editor  -- read/write/delete files and folders, create API keys
    viewer  -- read-only

API keys may only reach files and folders.
"""

from __future__ import annotations

from filegate.rbac.policy import PolicyConfig
from filegate.rbac.types import (
    Action,
    MachineResourceScope,
    Permission,
    PermissionMapping,
    Resource,
    Role,
    RoleDefinition,
)

ROLE_ADMIN = Role("admin")
ROLE_EDITOR = Role("editor")
ROLE_VIEWER = Role("viewer")

PERMISSION_READ = Permission("read")
PERMISSION_WRITE = Permission("write")
PERMISSION_DELETE = Permission("delete")

RESOURCE_FILE = Resource("file")
RESOURCE_FOLDER = Resource("folder")
RESOURCE_API_KEY = Resource("api_key")
RESOURCE_MEMBER = Resource("member")

ACTION_READ = Action("read")
ACTION_WRITE = Action("write")
ACTION_DELETE = Action("delete")
ACTION_MANAGE = Action("manage")

_ALL_CONTENT = (ACTION_READ, ACTION_WRITE, ACTION_DELETE)
_ALL_ADMIN = (ACTION_READ, ACTION_WRITE, ACTION_DELETE, ACTION_MANAGE)


def file_management() -> PolicyConfig:
    """Return the policy used by the file service."""
    return PolicyConfig(
        roles=(
            RoleDefinition(name=ROLE_ADMIN, level=3),
            RoleDefinition(name=ROLE_EDITOR, level=2),
            RoleDefinition(name=ROLE_VIEWER, level=1),
        ),
        permissions=(PERMISSION_READ, PERMISSION_WRITE, PERMISSION_DELETE),
        resources=(RESOURCE_FILE, RESOURCE_FOLDER, RESOURCE_API_KEY, RESOURCE_MEMBER),
        actions=(ACTION_READ, ACTION_WRITE, ACTION_DELETE, ACTION_MANAGE),
        capabilities={
            ROLE_ADMIN: {
                RESOURCE_FILE: _ALL_CONTENT,
                RESOURCE_FOLDER: _ALL_CONTENT,
                RESOURCE_API_KEY: _ALL_ADMIN,
                RESOURCE_MEMBER: _ALL_ADMIN,
            },
            ROLE_EDITOR: {
                RESOURCE_FILE: _ALL_CONTENT,
                RESOURCE_FOLDER: _ALL_CONTENT,
                RESOURCE_API_KEY: (ACTION_READ, ACTION_WRITE),
                RESOURCE_MEMBER: (ACTION_READ,),
            },
            ROLE_VIEWER: {
                RESOURCE_FILE: (ACTION_READ,),
                RESOURCE_FOLDER: (ACTION_READ,),
                RESOURCE_API_KEY: (ACTION_READ,),
                RESOURCE_MEMBER: (ACTION_READ,),
            },
        },
        permission_mapping=(
            PermissionMapping(permission=PERMISSION_READ, action=ACTION_READ),
            PermissionMapping(permission=PERMISSION_WRITE, action=ACTION_WRITE),
            PermissionMapping(permission=PERMISSION_DELETE, action=ACTION_DELETE),
        ),
        machine_scope=MachineResourceScope(allowed_resources=(RESOURCE_FILE, RESOURCE_FOLDER)),
    )
