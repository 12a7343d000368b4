import asyncio
import sys

import httpx


async def fetch(video_url):
    base = "http://localhost:8000"
    async with httpx.AsyncClient(timeout=310) as client:
        print(f"Requesting transcript for {video_url}")
        resp = await client.get(f"{base}/getscript", params={"url": video_url})
        body = resp.json()

    if not body.get("success"):
        print(f"Failed ({resp.status_code}): {body.get('error')}")
        return

    data = body["data"]
    print(f"{data['segmentCount']} segments, {data['totalDuration']:.1f}s, cleaned by {data['cleanupMethod']}\n")
    for i, seg in enumerate(data["cleanedSegments"], start=1):
        print(f"[{i}] {seg['start']:.2f}s - {seg['end']:.2f}s:")
        print(f"   Cleaned:  {seg['cleanedText']}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        sys.exit("usage: python getscript_client.py <youtube_url>")
    asyncio.run(fetch(sys.argv[1]))
