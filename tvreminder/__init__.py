# TV Reminder
__version__ = "0.1.0"
