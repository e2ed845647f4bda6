"""Run the gateway with uvicorn: `python -m billing_gateway`."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "billing_gateway.main:get_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
