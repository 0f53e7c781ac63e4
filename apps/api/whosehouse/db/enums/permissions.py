"""Role permission helper sets."""

from whosehouse.db.enums.auth import Role

# Roles that can create cases and send placement requests
ROLES_CAN_MANAGE_CASES = {Role.SOCIAL_WORKER}

# Roles that can mark messages urgent
ROLES_CAN_SEND_URGENT = {Role.SOCIAL_WORKER}

# Roles that can read internal case notes
ROLES_CAN_VIEW_INTERNAL_NOTES = {Role.SOCIAL_WORKER, Role.ADMIN}

# Roles that can search households for placements
ROLES_CAN_SEARCH_HOUSEHOLDS = {Role.SOCIAL_WORKER, Role.ADMIN}

# Roles that can manage accounts and assignments
ROLES_CAN_MANAGE_USERS = {Role.ADMIN}

# Roles that can view audit logs
ROLES_CAN_VIEW_AUDIT = {Role.ADMIN}
