from typing import Final

# Sentiment keyword lists (matched against lower-cased whitespace tokens)
POSITIVE_KEYWORDS: Final[tuple[str, ...]] = (
    "excellent",
    "amazing",
    "great",
    "wonderful",
    "fantastic",
    "outstanding",
    "professional",
    "reliable",
    "skilled",
    "experienced",
    "quality",
    "best",
    "friendly",
    "helpful",
    "efficient",
    "creative",
    "innovative",
    "dedicated",
)
NEGATIVE_KEYWORDS: Final[tuple[str, ...]] = (
    "terrible",
    "awful",
    "bad",
    "poor",
    "horrible",
    "disappointing",
    "unprofessional",
    "unreliable",
    "inexperienced",
    "slow",
    "expensive",
    "rude",
    "unhelpful",
    "lazy",
    "careless",
    "sloppy",
    "overpriced",
)

# Sentiment thresholds
SENTIMENT_POSITIVE_THRESHOLD: Final[float] = 0.2
SENTIMENT_NEGATIVE_THRESHOLD: Final[float] = -0.2
NEUTRAL_CONFIDENCE: Final[float] = 0.5
CONFIDENCE_SATURATION_WORDS: Final[int] = 10  # keyword hits needed for full confidence
REWRITE_CONFIDENCE: Final[float] = 0.6

# Pricing (base price in local currency before the experience multiplier)
BASE_PRICES: Final[dict[str, int]] = {
    "hairdressing": 150,
    "plumbing": 300,
    "tutoring": 180,
    "makeup": 200,
    "cleaning": 120,
    "catering": 250,
    "photography": 400,
    "sewing": 180,
    "crochet": 150,
    "electrical": 350,
    "other": 200,
}
DEFAULT_BASE_PRICE: Final[int] = 200
EXPERIENCE_PRICE_STEP: Final[float] = 0.1  # +10% per year

# Fallback bios, formatted with name/skill/years/location
FALLBACK_BIO_TEMPLATES: Final[tuple[str, ...]] = (
    "{name} is a skilled {skill} with {years} years of experience serving clients in {location}. "
    "Known for delivering high-quality work and exceptional customer service.",
    "With {years} years of hands-on experience, {name} specializes in {skill} and has built a "
    "reputation for reliability and expertise in {location}.",
    "{name} brings {years} years of professional {skill} experience to every project. "
    "Based in {location}, they are committed to exceeding client expectations.",
)

# Trend detection
TREND_WINDOW_DAYS: Final[int] = 7
ENGAGEMENT_TREND_TOLERANCE: Final[float] = 0.05  # relative change treated as stable
SENTIMENT_TREND_TOLERANCE: Final[float] = 0.05  # absolute score change treated as stable
SENTIMENT_HISTORY_LIMIT: Final[int] = 5000  # analyzed scores kept for the sentiment trend

WEEK_WINDOW_DAYS: Final[int] = 7

# Social posts
SOCIAL_PLATFORM_SPECS: Final[dict[str, str]] = {
    "instagram": "Instagram (visual-focused, use emojis, 2200 character limit)",
    "facebook": "Facebook (community-focused, longer form content allowed)",
    "twitter": "Twitter/X (concise, 280 character limit, trending hashtags)",
}
SOCIAL_POST_INSTRUCTIONS: Final[dict[str, str]] = {
    "promotion": "Create a promotional post highlighting the service benefits and encouraging bookings",
    "testimonial": "Write a post featuring a fictional but realistic client testimonial",
    "tips": "Share 3-5 professional tips related to the service",
    "showcase": "Showcase the quality and expertise of the service provider",
}
MAX_HASHTAGS: Final[int] = 8
BASE_HASHTAGS: Final[tuple[str, ...]] = ("#SkillHub", "#SouthAfrica", "#LocalBusiness", "#Professional", "#Quality")
SERVICE_HASHTAGS: Final[dict[str, tuple[str, ...]]] = {
    "plumbing": ("#Plumbing", "#PlumberSA", "#HomeRepairs", "#WaterProblems"),
    "electrical work": ("#Electrician", "#ElectricalWork", "#HomeSafety", "#PowerSolutions"),
    "carpentry": ("#Carpentry", "#Woodwork", "#HomeImprovement", "#CustomFurniture"),
    "painting": ("#Painting", "#HomeDecor", "#InteriorDesign", "#WallPainting"),
    "gardening": ("#Gardening", "#Landscaping", "#GreenThumb", "#OutdoorSpaces"),
    "cleaning": ("#Cleaning", "#CleaningServices", "#HomeClean", "#DeepClean"),
    "tutoring": ("#Tutoring", "#Education", "#Learning", "#AcademicSupport"),
    "catering": ("#Catering", "#FoodService", "#Events", "#DeliciousFood"),
    "photography": ("#Photography", "#PhotoShoot", "#Memories", "#ProfessionalPhotos"),
    "hairdressing": ("#Hairdressing", "#HairStylist", "#Beauty", "#HairCare"),
    "makeup": ("#Makeup", "#MakeupArtist", "#Beauty", "#Glam"),
}
DEFAULT_IMAGE_PROMPT: Final[str] = "Professional photo showcasing your work or service"
DEFAULT_SOCIAL_CONTENT: Final[str] = "Quality service you can trust! Contact us today for professional results."

# Fallback posts per post type and platform, formatted with name/service/tag
SOCIAL_POST_TEMPLATES: Final[dict[str, dict[str, str]]] = {
    "promotion": {
        "instagram": "Looking for reliable {service}? {name} delivers exceptional results every time!\n\n"
        "Book your appointment today\nQuality guaranteed\nYears of experience",
        "facebook": "Hi everyone!\n\nI'm {name}, your trusted {service} professional. With years of experience "
        "serving our community, I'm committed to delivering exceptional results for every client.\n\n"
        "- Professional service\n- Competitive pricing\n- Customer satisfaction guaranteed\n\n"
        "Ready to book? Send me a message or call today!",
        "twitter": "{name} - Professional {service} services\nQuality guaranteed\nBook today! #{tag}",
    },
    "testimonial": {
        "instagram": '"Amazing work by {name}! Professional, reliable, and exceeded my expectations. '
        'Highly recommend!" - Happy Client\n\nThank you for trusting us with your {service} needs!',
        "facebook": 'Client Review:\n\n"I recently used {name} for {service} and was thoroughly impressed. '
        "Professional, punctual, and the quality of work was outstanding. Will definitely be using their "
        'services again!"\n\nThank you for the amazing feedback! Reviews like this make our day.',
        "twitter": '"Excellent {service} service by {name}! Professional and reliable." - Happy Client',
    },
    "tips": {
        "instagram": "Pro Tips for {service}:\n\n1. Regular maintenance saves money long-term\n"
        "2. Quality materials make a difference\n3. Don't delay repairs, small issues become big problems\n\n"
        "Need professional help? I'm here to assist!",
        "facebook": "Professional Tips for {service}:\n\nTip 1: Regular maintenance prevents costly repairs\n"
        "Tip 2: Always use quality materials and tools\nTip 3: Address small issues before they become major "
        "problems\nTip 4: When in doubt, consult a professional\n\nHave questions? Feel free to reach out!",
        "twitter": "{service} Pro Tips:\nRegular maintenance\nQuality materials\nAddress issues early\n\n"
        "Need help? Contact {name}!",
    },
    "showcase": {
        "instagram": "Proud to showcase another successful {service} project!\n\nAttention to detail\n"
        "Professional execution\nAnother satisfied client\n\nYour project could be next! DM for quotes.",
        "facebook": "Project Showcase!\n\nJust completed another fantastic {service} project. It's incredibly "
        "rewarding to see the transformation and the smile on our client's face.\n\n- Professional results\n"
        "- Attention to detail\n- Customer satisfaction\n\nInterested in similar work? Get in touch for a free quote!",
        "twitter": "Another successful {service} project completed!\n\nProfessional results\nHappy client\n\n"
        "Your turn next?",
    },
}
SOCIAL_IMAGE_PROMPTS: Final[dict[str, str]] = {
    "promotion": "Professional photo of {service} work in progress, showing tools and expertise",
    "testimonial": "Before and after photos showing the quality results of {service} work",
    "tips": "Educational image showing {service} tools, techniques, or best practices",
    "showcase": "High-quality photo showcasing completed {service} project with excellent results",
}
