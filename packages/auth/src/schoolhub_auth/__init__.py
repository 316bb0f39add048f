"""Session and identity layer for SchoolHub.

The SessionSynchronizer keeps {user, session, profile, role} consistent with
GoTrue's event stream; the rest of this package provides the pieces it is
wired from (provider, session store, event channel) plus account provisioning.
"""
