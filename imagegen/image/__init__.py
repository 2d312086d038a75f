"""Image generation adapter package.

Scope:
    Validates tool parameters, talks to the OpenAI Responses API and hands
    returned payloads to the output store.

Module split:
    - `validation`: defaulting and enumerated-set checks.
    - `client`: `requests` transport for the Responses API.
    - `service`: generation operations returning the Result Envelope.
"""
