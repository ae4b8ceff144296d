# Copyright European Space Agency, 2013

import io
import os

import numpy as np
import skimage.io
import skimage.color

from PIL import Image, ImageDraw, ImageFont

def loadImage(imagePath):
    """
    Return RGB image in native color range (e.g. [0,255] for uint8).
    Ignores the alpha channel.

    :param imagePath:
    :rtype: rgb array of shape (height,width,3)
    """
    rgb = skimage.io.imread(imagePath)
    return _asRGB(rgb, imagePath)

def decodeImage(data):
    """
    Decode an encoded image (JPEG, PNG, ...) given as bytes.

    :param bytes data:
    :rtype: rgb array of shape (height,width,3)
    :raise OSError: if the data is not a readable image
    """
    with Image.open(io.BytesIO(data)) as im:
        rgb = np.asarray(im.convert('RGB'))
    return _asRGB(rgb, '<bytes>')

def _asRGB(rgb, source):
    if rgb.ndim == 2:
        rgb = skimage.color.gray2rgb(rgb)

    # ignore alpha if available
    rgb = rgb[:,:,:3]

    assert rgb.ndim == 3 and rgb.shape[2] == 3,\
           source + '; wrong shape: ' + str(rgb.shape)
    return rgb

def saveImage(imagePath, im, **kw):
    """
    :param imagePath: output path
    :param im: the image

    Additional optional keywords for JPEG:

    :param quality: 1 to 95
    :param subsampling: '4:4:4', '4:2:2', or '4:1:1'
    """
    if os.path.splitext(imagePath)[1].lower() in ['.jpeg', '.jpg']:
        # for jpg we use Pillow directly, as skimage doesn't allow
        # to set the JPEG quality
        im = Image.fromarray(im)
        im.save(imagePath, optimize=True, **kw)
    else:
        skimage.io.imsave(imagePath, im, check_contrast=False)

def hasSignature(path, magic):
    """
    Return True if the file starts with the given magic bytes.
    """
    try:
        with open(path, 'rb') as fp:
            header = fp.read(len(magic))
    except OSError:
        return False
    return len(magic) > 0 and header == magic

def blankCanvas(width, height):
    """ Black RGB image. """
    return np.zeros((height, width, 3), np.uint8)

def annotateCenter(im, title, subtitle=None, color=(255,255,0), armLength=30, position=None):
    """
    Return a copy of the image with a crosshair at `position` (by default
    the center pixel) and labels next to it. The input image is not modified.

    :param im: rgb array of shape (height,width,3)
    :param str title: e.g. the target name
    :param str subtitle: e.g. the target coordinates
    :param position: (x,y) of the crosshair, e.g. the target pixel
    :rtype: rgb array
    """
    pil = Image.fromarray(np.ascontiguousarray(im))
    draw = ImageDraw.Draw(pil)
    if position is None:
        cx, cy = pil.width // 2, pil.height // 2
    else:
        cx, cy = position

    draw.line([(cx - armLength, cy), (cx + armLength, cy)], fill=color, width=3)
    draw.line([(cx, cy - armLength), (cx, cy + armLength)], fill=color, width=3)

    font = ImageFont.load_default()
    draw.text((cx + 40, cy - 30), title, fill=color, font=font)
    if subtitle:
        draw.text((cx + 40, cy - 15), subtitle, fill=color, font=font)
    draw.text((cx + 40, cy), 'COORDINATE CENTERED', fill=color, font=font)

    return np.asarray(pil)

def letterbox(im, width, height):
    """
    Resize the image to fit into width x height keeping its aspect ratio and
    pad the remaining area with black.

    :rtype: rgb array of shape (height,width,3)
    """
    h, w = im.shape[:2]
    scale = min(width / w, height / h)
    newWidth = max(1, int(round(w * scale)))
    newHeight = max(1, int(round(h * scale)))
    resized = Image.fromarray(np.ascontiguousarray(im)).resize((newWidth, newHeight), Image.LANCZOS)

    canvas = blankCanvas(width, height)
    x = (width - newWidth) // 2
    y = (height - newHeight) // 2
    canvas[y:y+newHeight, x:x+newWidth] = np.asarray(resized)
    return canvas
