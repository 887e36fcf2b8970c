"""Business services of the shop core."""
