"""
Shared, cross-cutting code for the service.

`core/` contains small building blocks that both the seeding pipeline and the
query API use (DB wiring, settings, logging, the Open Trivia DB client).
Keep feature-specific SQL and business logic in the corresponding feature
package (e.g. `seeding/`, `questions/`).
"""
