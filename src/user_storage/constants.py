USER_TABLE = "users"
PRIMARY_KEY = "id"
# Column of every event collection table that references the user id space.
USER_COLUMN = "user"
