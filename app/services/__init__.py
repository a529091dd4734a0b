"""
Services layer - Business logic goes here.
Keep services focused on specific domains (reports, locations, auth, etc.)

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- External providers (Places, Firebase Auth) sit behind abstract boundaries
- A report is only stored once its location carries coordinates
"""
