"""
Counsellor Core

Enrichment cache and AI response reconciliation layer for the
study-abroad counselling backend:
1. Routes LLM calls across Gemini and Groq with key rotation and fallback
2. Extracts structured JSON from noisy model output
3. Caches university enrichment with tiered TTLs and confidence scores
4. Caches per-user fit analyses with profile-driven invalidation
5. Collapses N entities into one model call for batch paths
"""

__version__ = "0.1.0"
