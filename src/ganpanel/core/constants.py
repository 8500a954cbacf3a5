"""Centralized constants for the application."""

# Model files shipped with the generator
FFHQ_MODEL = "StyleGAN_karras2019stylegan-ffhq-1024x1024.ct4"
CELEBAHQ_MODEL = "StyleGAN_karras2019stylegan-celebahq-1024x1024.ct4"
ANIME_FACES1_MODEL = "StyleGAN_2019-03-08-stylegan-animefaces-network-02051-021980.ct4"
ANIME_FACES2_MODEL = "StyleGAN_2019-02-26-stylegan-faces-network-02048-016041.ct4"
ANIME_PORTRAITS_MODEL = "StyleGAN_2019-04-30-stylegan-danbooru2018-portraits-02095-066083.ct4"

# Used when no mapping row matches
DEFAULT_MODEL_FILE = FFHQ_MODEL
