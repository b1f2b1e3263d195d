"""Example: Transcribe an audio file using the transcription gateway library."""

import asyncio
import os

from transcription_gateway import (
    GatewayError,
    SupportedLanguage,
    TranscriptionConfig,
    TranscriptionRequest,
    transcribe_upload,
)


async def main():
    """Transcribe an audio file."""
    # Defaults point at the public DashScope endpoints
    config = TranscriptionConfig()
    api_key = os.environ["DASHSCOPE_API_KEY"]

    audio_path = "path/to/your/audio.wav"
    with open(audio_path, "rb") as f:
        request = TranscriptionRequest(
            file=f,
            size=os.path.getsize(audio_path),
            model="qwen3-asr-flash",
            filename=os.path.basename(audio_path),
            language=SupportedLanguage.EN,
            response_format="verbose_json",
        )

        print("Transcribing audio...")
        try:
            response = await transcribe_upload(request, api_key, config)
        except GatewayError as e:
            print(f"Transcription failed ({e.status_code}): {e.public_message}")
            return

    print(f"\nTranscript:\n{response.text}")
    print(f"Uploaded to: {response.upload_info.oss_url}")
    if response.asr_metadata:
        print(f"Detected language: {response.asr_metadata.detected_language}")


if __name__ == "__main__":
    asyncio.run(main())
