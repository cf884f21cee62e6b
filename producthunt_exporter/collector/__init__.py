"""Product Hunt API access: page fetching, rate limiting and date filtering."""
