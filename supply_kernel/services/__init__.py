"""Write-side services.  Every service flushes and never commits."""
