"""DORA and engineering KPI collection from Jira, Bitbucket, Pingdom and Metabase."""

__version__ = "0.1.0"
