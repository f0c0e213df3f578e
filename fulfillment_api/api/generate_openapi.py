import json
import os

from fulfillment_api.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Every tenant-scoped route expects the platform header
openapi_schema["x-platform-header"] = {
    "name": "X-Platform",
    "required": True,
    "description": "UUID of the platform the request is scoped to.",
}

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
