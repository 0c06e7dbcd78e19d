"""
Custom exception classes

All business-rule failures live here so the API layer can map them in one
place. Every exception carries a stable ``kind`` and a human-readable message;
neither ever contains a stack trace or an internal identifier.
"""


class ManitoException(Exception):
    """Base class for all group / assignment errors"""
    kind = "internal"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> dict:
        return {
            "success": False,
            "error": {"kind": self.kind, "message": self.message},
        }


# ============ Error kinds ============

class InvalidInput(ManitoException):
    """Malformed or missing required field"""
    kind = "invalid_input"
    status_code = 400
    default_message = "Invalid input"


class NotFound(ManitoException):
    """Referenced group or member does not exist"""
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class Conflict(ManitoException):
    """Duplicate name, duplicate membership, assignment already exists"""
    kind = "conflict"
    status_code = 409
    default_message = "Conflict"


class Forbidden(ManitoException):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class PreconditionFailed(ManitoException):
    """The group is not in a state that allows the requested transition"""
    kind = "precondition_failed"
    status_code = 412
    default_message = "Precondition failed"


class Internal(ManitoException):
    """Persistence failure or unexpected exception"""
    pass


# ============ Group ============

class GroupNotFound(NotFound):
    def __init__(self, group_id):
        self.group_id = group_id
        super().__init__("Group not found")


class GroupNameConflict(Conflict):
    """Group display names are unique across all groups"""
    def __init__(self, name):
        self.name = name
        super().__init__(f"Group name '{name}' already exists")


# ============ Membership ============

class AlreadyMember(Conflict):
    default_message = "Already a member of this group"


class SecretMismatch(Forbidden):
    default_message = "Group password does not match"


class NotCaptain(Forbidden):
    """Only the captain may assign, reveal or retire"""
    default_message = "Only the group captain can do this"


class MissingIdentity(Forbidden):
    default_message = "User identity is required"


class JoinClosed(PreconditionFailed):
    """Group is past OPEN; a late member would have no recipient"""
    default_message = "Group no longer accepts members"


# ============ Assignment ============

class AlreadyAssigned(Conflict):
    default_message = "Manito is already assigned"


class TooFewMembers(PreconditionFailed):
    default_message = "Not enough members"


class InsufficientMembers(PreconditionFailed):
    """Match generation needs at least two identifiers"""
    default_message = "At least two members are required for matching"


class IncompleteAssignment(PreconditionFailed):
    default_message = "Not all members have manito assigned"


class RevealRequired(PreconditionFailed):
    default_message = "Manito must be revealed before the group can be deleted"


class AssignmentInvariantViolation(Internal):
    """Match generation produced a self-assignment on every attempt"""
    default_message = "Failed to generate a valid assignment"


class PartialAssignmentDetected(Internal):
    """Some but not all members of a group have a recipient"""
    default_message = "Group assignment is in an inconsistent state"
