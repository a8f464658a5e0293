# Core infrastructure: config, logging, database, errors, locks
