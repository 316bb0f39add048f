"""Component registry: maps component names to their task queue and activities.

Every deployed worker runs the same image; the component name passed on the
command line (or in COMPONENT) picks one entry here.
"""

from dataclasses import dataclass, field
from typing import Any

from schoolhub_auth.activities import provision_account
from schoolhub_data_access.activities import (
    assign_to_class,
    create_class,
    create_school,
    find_profile,
    get_school,
    list_classes,
    list_people,
    list_schools,
    register_profile,
    retire_profile,
    retire_school,
    survey_stats,
    unassign_from_class,
    update_profile,
)
from schoolhub_data_access.leaves import apply_leave, list_holidays, list_leaves, review_leave
from schoolhub_shared.task_queues import (
    DIRECTORY_ACCESS_QUEUE,
    IDENTITY_ACCESS_QUEUE,
    LEAVE_ACCESS_QUEUE,
)


@dataclass
class ComponentConfig:
    """Configuration for a single component's worker."""

    task_queue: str
    activities: list[Any] = field(default_factory=list)


COMPONENTS: dict[str, ComponentConfig] = {
    "directory-access": ComponentConfig(
        task_queue=DIRECTORY_ACCESS_QUEUE,
        activities=[
            find_profile,
            list_people,
            list_schools,
            list_classes,
            survey_stats,
            register_profile,
            retire_profile,
            update_profile,
            create_school,
            get_school,
            retire_school,
            create_class,
            assign_to_class,
            unassign_from_class,
        ],
    ),
    "leave-access": ComponentConfig(
        task_queue=LEAVE_ACCESS_QUEUE,
        activities=[apply_leave, review_leave, list_leaves, list_holidays],
    ),
    "identity-access": ComponentConfig(
        task_queue=IDENTITY_ACCESS_QUEUE,
        activities=[provision_account],
    ),
}
