import asyncio
import base64

import httpx

from saikaki.services.vision_service import (
    ANALYSIS_UNAVAILABLE,
    ImageCandidate,
    VisionService,
    describe_image_bytes,
    is_image,
    placeholder_svg,
    strip_data_url,
    unsplash_url,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\xff" * 300
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def _service(handler, **kwargs):
    kwargs.setdefault("huggingface_api_key", "")
    kwargs.setdefault("google_api_key", "")
    return VisionService(transport=httpx.MockTransport(handler), timeout_s=1, **kwargs)


def test_generate_skips_endpoints_that_do_not_serve_images():
    probed = []

    def handler(request):
        probed.append(str(request.url))
        if request.url.host == "pollinations.ai" and "model=flux" not in str(request.url):
            return httpx.Response(200, headers={"content-type": "text/html"})
        return httpx.Response(200, headers={"content-type": "image/jpeg"})

    result = asyncio.run(_service(handler).generate_image("a red tomato"))

    assert result.provider_name == "pollinations_2"
    assert result.value.url.startswith("https://image.pollinations.ai/prompt/a%20red%20tomato")
    assert len(probed) == 2


def test_generate_falls_through_to_unsplash_when_apis_fail():
    def handler(request):
        return httpx.Response(503)

    result = asyncio.run(_service(handler).generate_image("cute cat on a sofa"))

    assert result.provider_name == "unsplash"
    assert "cute%20cat" in result.value.url


def test_generate_uses_craiyon_images():
    def handler(request):
        if request.url.host == "backend.craiyon.com":
            return httpx.Response(200, json={"images": ["QUJD"]})
        return httpx.Response(500)

    result = asyncio.run(_service(handler).generate_image("lighthouse"))

    assert result.provider_name == "craiyon"
    assert result.value.url == "data:image/jpeg;base64,QUJD"


def test_analyze_with_caption_model():
    def handler(request):
        assert request.url.host == "api-inference.huggingface.co"
        return httpx.Response(200, json=[{"generated_text": "a cat on a keyboard"}])

    result = asyncio.run(_service(handler).analyze_image(PNG_DATA_URL))

    assert result.provider_name == "huggingface"
    assert result.value.startswith("I can see: a cat on a keyboard.")


def test_analyze_uses_google_vision_when_configured():
    def handler(request):
        if request.url.host == "vision.googleapis.com":
            assert request.url.params["key"] == "g-key"
            return httpx.Response(200, json={"responses": [{
                "labelAnnotations": [{"description": "Dog", "score": 0.95}, {"description": "Blur", "score": 0.2}],
                "textAnnotations": [{"description": "WOOF\n"}],
            }]})
        return httpx.Response(503)

    result = asyncio.run(_service(handler, google_api_key="g-key").analyze_image(PNG_DATA_URL))

    assert result.provider_name == "google_vision"
    assert result.value.startswith('I can see Dog with text: "WOOF"')


def test_analyze_falls_back_to_local_description():
    result = asyncio.run(_service(lambda request: httpx.Response(503)).analyze_image(PNG_DATA_URL))

    assert result.provider_name == "local"
    assert "PNG image" in result.value
    assert "bright" in result.value


def test_analyze_always_answers():
    result = asyncio.run(_service(lambda request: httpx.Response(503)).analyze_image(""))

    assert result.provider_name == "canned"
    assert result.value == ANALYSIS_UNAVAILABLE


def test_describe_jpeg_bytes():
    text = describe_image_bytes(b"\xff\xd8\xff\xe0" + b"\x00" * 1000)
    assert "JPEG photograph" in text and "dark" in text


def test_image_helpers():
    assert strip_data_url("data:image/png;base64,AAA") == "AAA"
    assert strip_data_url("AAA") == "AAA"
    assert is_image(ImageCandidate("u", "image/png"))
    assert not is_image(ImageCandidate("u", "text/html"))
    assert "happy%20dog" in unsplash_url("my puppy", sig=1)
    assert "abstract%20art" in unsplash_url("zzz", sig=1)
    # a fixed sig pins the image, the default varies per call
    assert unsplash_url("my puppy", sig=7).endswith("&sig=7")
    assert "&sig=" in unsplash_url("my puppy")


def test_placeholder_escapes_prompt():
    candidate = placeholder_svg("<script>")
    svg = base64.b64decode(candidate.url.split(",", 1)[1]).decode()
    assert "&lt;script&gt;" in svg and "<script>" not in svg
    assert is_image(candidate)
