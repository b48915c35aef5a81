"""Mode handlers for the calendar-widget CLI; one module per subcommand."""
