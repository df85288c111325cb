"""
Video Translator - translate the spoken audio track of a video.

A batch pipeline that:
- Extracts the audio track with ffmpeg
- Transcribes speech through a remote speech-to-text gateway
- Translates the transcript with a remote language model
- Synthesizes the translation with ElevenLabs TTS
- Remuxes the new audio track onto the original video stream
"""

__version__ = "0.1.0"
