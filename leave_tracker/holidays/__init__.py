"""Holiday directory module."""
