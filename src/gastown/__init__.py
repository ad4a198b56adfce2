"""gastown: pinned-bead attachments, the detach audit trail and the activity event log."""
