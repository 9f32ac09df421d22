"""fleetmon - fleet reconciliation and host audit log for CI build farms."""

__version__ = "0.1.0"
