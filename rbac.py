ADMIN = "admin"
MODERATOR = "moderator"
USER = "user"
GUEST = "guest"

MANAGE_USERS = "manage_users"
MANAGE_MOVIES = "manage_movies"
EDIT_MOVIE_INFO = "edit_movie_info"
CREATE_REVIEWS = "create_reviews"
MODERATE_REVIEWS = "moderate_reviews"
RATE_MOVIES = "rate_movies"
BOOKMARK_MOVIES = "bookmark_movies"
EDIT_PROFILE = "edit_profile"
EDIT_SITE_CONTENT = "edit_site_content"
DELETE_CONTENT = "delete_content"
VIEW_ANALYTICS = "view_analytics"
MANAGE_REPORTS = "manage_reports"
VIEW_MOVIES = "view_movies"
VIEW_REVIEWS = "view_reviews"

ROLE_PERMISSIONS = {
    ADMIN: [
        MANAGE_USERS,
        MANAGE_MOVIES,
        MODERATE_REVIEWS,
        VIEW_ANALYTICS,
        EDIT_SITE_CONTENT,
        DELETE_CONTENT,
    ],
    MODERATOR: [MODERATE_REVIEWS, EDIT_MOVIE_INFO, MANAGE_REPORTS],
    USER: [CREATE_REVIEWS, RATE_MOVIES, BOOKMARK_MOVIES, EDIT_PROFILE],
    GUEST: [VIEW_MOVIES, VIEW_REVIEWS],
}

ROLE_LEVELS = {GUEST: 0, USER: 1, MODERATOR: 2, ADMIN: 3}

FEATURE_FLAGS = {
    "admin_panel": [ADMIN],
    "user_management": [ADMIN],
    "site_settings": [ADMIN],
    "analytics_dashboard": [ADMIN],
    "moderation_panel": [ADMIN, MODERATOR],
    "content_moderation": [ADMIN, MODERATOR],
    "movie_rating": [ADMIN, MODERATOR, USER],
    "movie_reviews": [ADMIN, MODERATOR, USER],
    "bookmarking": [ADMIN, MODERATOR, USER],
    "profile_editing": [ADMIN, MODERATOR, USER],
    "movie_browsing": [ADMIN, MODERATOR, USER, GUEST],
    "review_viewing": [ADMIN, MODERATOR, USER, GUEST],
}

RESOURCE_ACTIONS = {
    "movie": [RATE_MOVIES, BOOKMARK_MOVIES, CREATE_REVIEWS, MANAGE_MOVIES, EDIT_MOVIE_INFO],
    "review": [CREATE_REVIEWS, MODERATE_REVIEWS, DELETE_CONTENT],
    "user": [MANAGE_USERS, VIEW_ANALYTICS],
    "profile": [EDIT_PROFILE, MANAGE_USERS],
}

VERIFICATION_REQUIRED = {CREATE_REVIEWS, RATE_MOVIES, MANAGE_MOVIES, MODERATE_REVIEWS}

OVERRIDE_ROLES = [ADMIN, MODERATOR]


def permissions_for(role):
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(user, permission):
    if not user:
        return False
    return permission in user.get("permissions", [])


def has_any_permission(user, permissions):
    return any(has_permission(user, permission) for permission in permissions)


def has_all_permissions(user, permissions):
    if not user:
        return False
    return all(has_permission(user, permission) for permission in permissions)


def has_role(user, role):
    if not user:
        return False
    return user.get("role") == role


def has_any_role(user, roles):
    if not user:
        return False
    return user.get("role") in roles


def can_access_feature(user, feature):
    if feature not in FEATURE_FLAGS:
        raise KeyError(f"Unknown feature: {feature}")
    allowed = FEATURE_FLAGS[feature]
    if not user:
        return GUEST in allowed
    return user.get("role") in allowed


def get_role_level(role):
    return ROLE_LEVELS.get(role, 0)


def has_minimum_role(user, min_role):
    if not user:
        return min_role == GUEST
    return get_role_level(user.get("role")) >= get_role_level(min_role)


def filter_by_permission(user, items, required_permission):
    if not user:
        return []
    return [item for item in items if has_permission(user, required_permission(item))]


def can_perform_action(user, action, resource=None):
    return can_user_perform_action(user, action, resource, check_verification=False)[0]


def get_available_actions(user, resource_type, resource=None):
    if not user:
        return []
    return [
        action
        for action in RESOURCE_ACTIONS.get(resource_type, [])
        if can_perform_action(user, action, resource)
    ]


def is_verified(user):
    return bool(user and user.get("is_verified"))


def requires_verification(action):
    return action in VERIFICATION_REQUIRED


def can_user_perform_action(user, action, resource=None, check_verification=True):
    """Return ``(allowed, reason)``; reason is None when allowed.

    Owned resources (``resource["owner_id"]``) are only actionable by their
    owner, unless the user is an admin or moderator.
    """
    if not user:
        return False, "User not authenticated"
    if not has_permission(user, action):
        return False, "Insufficient permissions"
    if check_verification and requires_verification(action) and not is_verified(user):
        return False, "Email verification required"
    owner_id = (resource or {}).get("owner_id")
    if owner_id:
        if user.get("id") != owner_id and not has_any_role(user, OVERRIDE_ROLES):
            return False, "Can only perform this action on your own content"
    return True, None
