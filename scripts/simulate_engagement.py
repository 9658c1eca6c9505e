"""Simulate a user's first weeks against a running Wellspring API.

Submits an assessment, then replays a stream of synthetic video, topic and
wellness interactions, printing how the mixing ratio and primary interests
evolve as the user moves from cold start through warming to mature.
Usage: python -m scripts.simulate_engagement [--events 60] [--base-url http://localhost:8000]
"""
import argparse
import asyncio
import random
import sys
import uuid
from typing import Any

import httpx


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_EVENTS = 60

SAMPLE_ANSWERS: dict[str, Any] = {
    "nickname": "Sim",
    "current_mood": "6",
    "past_week_happiness": "5",
    "stress_burnout": "7",
    "content_preferences": ["Comedy / Humor", "Nature & Animals", "Learning / Education"],
    "content_preferences_categories": ["Positive Emotion (PE)", "Engagement (E)"],
    "happiness_driver": "Learning something new",
    "coping_preference": "Talk it out with someone",
    "mbti_ei": "Being with others energises me",
    "mbti_sn": "I focus on tangible facts",
    "mbti_tf": "I decide with my heart",
    "mbti_jp": "I like to keep options open",
    "e_flow_activity": "Painting and reading about music history",
}

VIDEO_CATALOGUE = [
    ("Morning meditation for beginners", "Calm Corner", ["meditation"]),
    ("Funny animals compilation", "Daily Laughs", ["comedy", "animals"]),
    ("Learn watercolor painting", "Art Studio", ["art", "learning"]),
    ("Career growth habits", "Work Wise", ["career", "growth"]),
    ("Cooking for friends", "Kitchen Table", ["cooking", "friendship"]),
    ("Trail running adventure", "Outdoors Now", ["fitness", "adventure"]),
]

INTERACTION_TYPES = ["view", "like", "complete", "skip", "dislike"]
INTERACTION_WEIGHTS = [5, 3, 2, 2, 1]


def random_video_event() -> dict[str, Any]:
    """Generate one plausible video interaction."""
    title, channel, topics = random.choice(VIDEO_CATALOGUE)
    kind = random.choices(INTERACTION_TYPES, weights=INTERACTION_WEIGHTS)[0]
    total = random.randint(120, 900)
    watched = total if kind == "complete" else random.randint(0, total)
    return {
        "videoId": uuid.uuid4().hex[:11],
        "title": title,
        "channel": channel,
        "interactionType": kind,
        "watchDuration": watched,
        "totalDuration": total,
        "topics": topics,
    }


def random_topic_event() -> dict[str, Any]:
    topic = random.choice(["journaling", "yoga", "podcasts", "gardening", "chess"])
    return {
        "topic": topic,
        "engagementScore": random.choice([2, 5, 8, 9, 10]),
        "interactionType": random.choice(["view", "like", "save", "dismiss", "mention", "dismissal"]),
    }


def random_wellness_event() -> dict[str, Any]:
    return {
        "interventionType": random.choice(["breathing", "gratitude", "walk"]),
        "response": random.choice(["engaged", "skipped", "completed"]),
        "effectiveness": random.randint(1, 10),
        "dimension": random.choice(["positiveEmotion", "meaning", "relationships"]),
    }


async def post(client: httpx.AsyncClient, url: str, payload: dict[str, Any]) -> dict[str, Any] | None:
    try:
        resp = await client.post(url, json=payload)
        if resp.status_code in (200, 201):
            return resp.json()
        print(f"  [WARN] {url}: status {resp.status_code} {resp.text[:120]}")
    except httpx.HTTPError as exc:
        print(f"  [ERROR] {url}: {exc}")
    return None


async def run(base_url: str, events: int, seed: int | None) -> int:
    if seed is not None:
        random.seed(seed)

    user_id = f"sim-{uuid.uuid4().hex[:8]}"
    api = f"{base_url}/api/v1"
    print(f"Simulating {events} events for {user_id}")

    async with httpx.AsyncClient(timeout=30.0) as client:
        created = await post(client, f"{api}/assessment/{user_id}", {"answers": SAMPLE_ANSWERS})
        if created is None:
            print("Assessment failed; aborting.")
            return 1
        print(f"  type={created['type_code']} focus={created['focus_areas']}")
        print(f"  interests={created['primary_interests']}")

        for index in range(1, events + 1):
            roll = random.random()
            if roll < 0.7:
                await post(client, f"{api}/interactions/{user_id}/video", random_video_event())
            elif roll < 0.9:
                await post(client, f"{api}/interactions/{user_id}/topic", random_topic_event())
            else:
                await post(client, f"{api}/interactions/{user_id}/wellness", random_wellness_event())

            if index % 10 == 0:
                resp = await client.get(f"{api}/recommendations/{user_id}/mix")
                if resp.status_code != 200:
                    print(f"  [WARN] mix: status {resp.status_code}")
                    continue
                ratio = resp.json()["ratio"]
                print(
                    f"  after {index:3d} events: {ratio['regime']:<10} "
                    f"profile={ratio['profile_weight']:.2f} "
                    f"behavior={ratio['behavior_weight']:.2f} "
                    f"exploration={ratio['exploration_weight']:.2f}"
                )

        resp = await client.get(f"{api}/profiles/{user_id}")
        if resp.status_code == 200:
            profile = resp.json()["profile"]
            print(f"Final interests: {profile['content_preferences']['primary_interests']}")
            print(f"Final avoid:     {profile['content_preferences']['avoid_topics']}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate engagement against the Wellspring API")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    parser.add_argument("--events", type=int, default=DEFAULT_EVENTS)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.base_url, args.events, args.seed)))


if __name__ == "__main__":
    main()
