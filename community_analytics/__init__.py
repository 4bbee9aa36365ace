"""Community analytics and prediction engine."""
