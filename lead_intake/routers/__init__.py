"""HTTP routes served by lead_intake.main."""
