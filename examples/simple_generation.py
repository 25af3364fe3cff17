#!/usr/bin/env python3
"""
Simple Generation Example
=========================

Generates a 36 second video on Veo (a base clip plus four extensions) and
a three minute video on LongCat, then prints where each ended up.
"""

import asyncio
import logging
import os

from longform_video import Config, GenerationRequest, VideoCoordinator


async def main():
    """Long-form video generation example."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    missing = [name for name in ("GEMINI_API_KEY", "FAL_KEY") if not os.getenv(name)]
    if missing:
        print(f"Please set {', '.join(missing)}")
        print("Gemini: https://aistudio.google.com/apikey")
        print("fal.ai: https://fal.ai/dashboard/keys")
        return

    config = Config.load()

    requests = [
        GenerationRequest(
            prompt="A lighthouse keeper climbs a spiral staircase at dusk, "
                   "cinematic lighting, warm tones",
            target_duration_seconds=36,
            extension_prompts=[
                "The keeper reaches the lamp room and strikes a match",
                "The great lamp flickers to life",
                "The beam sweeps out across a stormy sea",
                "A distant ship turns toward the light",
            ],
        ),
        GenerationRequest(
            prompt="A slow aerial journey along a river from mountain spring to delta",
            target_duration_seconds=180,
        ),
    ]

    async with VideoCoordinator.from_config(config) as coordinator:
        for request in requests:
            print(f"\nPrompt: {request.prompt}")
            print(f"Duration: {request.target_duration_seconds}s")
            print(f"Backend: {coordinator.select_provider(request)}")

            result = await coordinator.generate_video(request)

            print(f"Status: {result.status.value}")
            print(f"Clips: {result.completed_clips}/{result.total_clips}")
            print(f"Duration: {result.total_duration_seconds}s")
            print(f"Provider usage: {result.provider_usage}")
            print(f"Video: {result.final_artifact_path}")

            if result.error:
                print(f"Stopped early: {result.error['message']}")


if __name__ == "__main__":
    asyncio.run(main())
