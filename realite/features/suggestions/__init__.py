"""
Suggestions feature package.

Matches visible events against a user's calendar and learned preferences,
stores them as suggestions and learns from accept/decline feedback.
Import the router from `.api.router` and the engine from
`.services.suggestion_engine`.
"""
