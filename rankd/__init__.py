"""FastAPI application package for the ordered collections service.

The application factory is `rankd.main.create_app`. Ordering persistence
lives in `rankd/logic/`, HTTP handlers in `rankd/routes/`, and the optimistic
reorder client in `rankd/client/`. Importing the client does not load the
server stack.
"""
