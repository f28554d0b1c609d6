"""Development web service for the survey API."""
