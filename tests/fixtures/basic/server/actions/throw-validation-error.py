from pydantic import BaseModel, Field

from safeaction import create_safe_action_client, return_validation_errors

action_client = create_safe_action_client(handle_server_error=lambda e: str(e))


class Register(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@action_client.schema(Register).action
async def action(args):
    # uniqueness is not something the schema can check
    if args.parsed_input.email == "taken@example.com":
        return_validation_errors({"email": ["This email is already taken"]})
    return {"registered": True}
