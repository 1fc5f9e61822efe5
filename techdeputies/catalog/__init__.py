"""Static catalogs: courses, subscription plans and calendar slot rules."""
