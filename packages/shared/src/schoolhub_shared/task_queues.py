"""Task queue name constants for each worker component.

Directory reads and leave writes run on separate queues so a burst of leave
reviews at term end never starves the roster screens, and provisioning (which
calls the GoTrue admin API) is isolated from both.

These constants are the single source of truth. The worker registry and any
client dispatching activities reference them.
"""

DIRECTORY_ACCESS_QUEUE = "directory-access-queue"
LEAVE_ACCESS_QUEUE = "leave-access-queue"
IDENTITY_ACCESS_QUEUE = "identity-access-queue"
