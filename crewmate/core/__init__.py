# Core infrastructure: database, events, errors, logging
