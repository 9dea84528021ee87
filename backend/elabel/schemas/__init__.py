"""
Pydantic request/response schemas. API field names are camelCase on the
wire (`identifierCode`) and snake_case in Python (`identifier_code`).
"""
