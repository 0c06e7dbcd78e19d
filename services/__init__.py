"""
Service layer

Pure helpers without state transitions:
- MatchService: who-gives-to-whom generation
- UserService: first-sight identity storage
"""
