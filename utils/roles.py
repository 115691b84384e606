ADMIN = "ADMIN"
MENTOR = "MENTOR"
PENDING_MENTOR = "PENDING_MENTOR"
MENTEE = "MENTEE"

ALL_ROLES = (ADMIN, MENTOR, PENDING_MENTOR, MENTEE)

# roles a user may pick for themselves after first login
SELF_SELECTABLE_ROLES = {MENTEE, PENDING_MENTOR}


def role_names(roles):
    names = []
    for role in roles or []:
        name = role if isinstance(role, str) else getattr(role, "name", None)
        if name in ALL_ROLES:
            names.append(name)
    return names
