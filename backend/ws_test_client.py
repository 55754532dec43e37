import asyncio
import json
import sys

import websockets


async def main(base_url: str = "ws://127.0.0.1:8000"):
    url = f"{base_url}/llm-websocket/smoke-call-1"
    async with websockets.connect(url) as ws:
        print(await ws.recv())

        await ws.send(json.dumps({
            "interaction_type": "call_details",
            "call": {
                "call_id": "smoke-call-1",
                "metadata": {
                    "first_name": "Ana",
                    "job_title": "Senior DevOps Engineer",
                    "company_name": "Acme",
                    "job_description": "Kubernetes, Terraform, AWS. 8+ years experience required.",
                    "interviewee_cv": "9 years experience. Strong in AWS, Kubernetes, CI/CD.",
                },
            },
        }))
        print(await ws.recv())

        await ws.send(json.dumps({"interaction_type": "ping_pong", "timestamp": 1}))
        print(await ws.recv())

        await ws.send(json.dumps({
            "interaction_type": "response_required",
            "response_id": 1,
            "transcript": [{"role": "user", "content": "I have mostly worked on AWS platform teams."}],
        }))
        while True:
            frame = json.loads(await ws.recv())
            print(frame)
            if frame.get("content_complete"):
                break


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
