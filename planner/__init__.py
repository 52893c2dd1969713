"""Planning-session manager: goals, plans and todos partitioned by repository and branch."""

__version__ = "0.1.0"
