# Data access package
