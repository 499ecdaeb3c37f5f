import logging

import numpy as np
from scipy.ndimage import correlate1d

log = logging.getLogger(__name__)

BINS = 256
EPSILON = 2.220446049250313e-16


def ij_default(hist):
    # IsoData variant that ignores the two extreme bins
    data = hist.copy()
    data[0] = 0
    data[-1] = 0
    populated = np.nonzero(data)[0]
    if len(populated) < 2:
        return len(data) // 2
    low, high = populated[0], populated[-1]

    levels = np.arange(len(data))
    moving = low
    while True:
        below = data[low:moving + 1]
        above = data[moving + 1:high + 1]
        mean_below = np.dot(levels[low:moving + 1], below) / below.sum()
        mean_above = np.dot(levels[moving + 1:high + 1], above) / above.sum()
        result = (mean_below + mean_above) / 2.0
        moving += 1
        if not ((moving + 1) <= result and moving < high - 1):
            break
    return int(np.floor(result + 0.5))


def huang(hist):
    populated = np.nonzero(hist)[0]
    first, last = populated[0], populated[-1]
    term = 1.0 / (last - first)
    levels = np.arange(BINS, dtype=np.float64)

    mu_0 = np.zeros(BINS)
    mu_0[first:] = np.cumsum(levels[first:] * hist[first:]) / np.cumsum(hist[first:])
    mu_1 = np.zeros(BINS)
    tail = hist[1:last + 1][::-1]
    tail_sum = (levels[1:last + 1] * hist[1:last + 1])[::-1]
    mu_1[:last][::-1] = np.cumsum(tail_sum) / np.cumsum(tail)

    threshold = -1
    lowest = np.inf
    for t in range(first, last + 1):
        mu_x = np.empty(BINS)
        mu_x[:t + 1] = 1.0 / (1.0 + term * np.abs(levels[:t + 1] - mu_0[t]))
        mu_x[t + 1:] = 1.0 / (1.0 + term * np.abs(levels[t + 1:] - mu_1[t]))
        valid = (mu_x >= 1e-06) & (mu_x <= 0.999999)
        m = mu_x[valid]
        entropy = np.sum(hist[valid] * (-m * np.log(m) - (1.0 - m) * np.log(1.0 - m)))
        if entropy < lowest:
            lowest = entropy
            threshold = t
    return threshold


def _smooth(hist):
    # 3 point running mean, zero outside the histogram
    return correlate1d(hist, np.full(3, 1.0 / 3.0), mode="constant", cval=0.0)


def _peaks(hist):
    return np.nonzero((hist[:-2] < hist[1:-1]) & (hist[2:] < hist[1:-1]))[0] + 1


def _smooth_until_bimodal(hist, name):
    smoothed = hist.copy()
    for _ in range(10000):
        if len(_peaks(smoothed)) == 2:
            return smoothed
        smoothed = _smooth(smoothed)
    log.warning("%s threshold not found after 10000 iterations", name)
    return None


def intermodes(hist):
    smoothed = _smooth_until_bimodal(hist, "Intermodes")
    if smoothed is None:
        return -1
    return int(np.floor(_peaks(smoothed).sum() / 2.0))


def minimum(hist):
    smoothed = _smooth_until_bimodal(hist, "Minimum")
    if smoothed is None:
        return -1
    for i in range(1, BINS - 1):
        if smoothed[i - 1] > smoothed[i] and smoothed[i + 1] >= smoothed[i]:
            return i
    return -1


def isodata(hist):
    levels = np.arange(BINS)
    g = 0
    for i in range(1, BINS):
        if hist[i] > 0:
            g = i + 1
            break
    while True:
        total_low = hist[:g + 1].sum()
        total_high = hist[g + 1:].sum()
        if total_low > 0 and total_high > 0:
            low = np.dot(levels[:g + 1], hist[:g + 1]) // total_low
            high = np.dot(levels[g + 1:], hist[g + 1:]) // total_high
            if g == int(np.floor((low + high) / 2.0 + 0.5)):
                break
        g += 1
        if g > BINS - 2:
            return -1
    return g


def li(hist):
    levels = np.arange(BINS)
    weighted = levels * hist
    mean = weighted[1:].sum() / hist.sum()

    new_threshold = mean
    while True:
        old_threshold = new_threshold
        threshold = int(old_threshold + 0.5)

        count_back = hist[:threshold + 1].sum()
        mean_back = weighted[:threshold + 1].sum() / count_back if count_back else 0.0
        count_obj = hist[threshold + 1:].sum()
        mean_obj = weighted[threshold + 1:].sum() / count_obj if count_obj else 0.0

        with np.errstate(divide="ignore", invalid="ignore"):
            temp = (mean_back - mean_obj) / (np.log(mean_back) - np.log(mean_obj))
        if not np.isfinite(temp):
            break
        if temp < -EPSILON:
            new_threshold = int(temp - 0.5)
        else:
            new_threshold = int(temp + 0.5)
        if abs(new_threshold - old_threshold) <= 0.5:
            break
    return threshold


def _normalized(hist):
    norm = hist / hist.sum()
    p1 = np.cumsum(norm)
    p2 = 1.0 - p1
    return norm, p1, p2


def _entropy_range(p1, p2):
    first = 0
    for i in range(BINS):
        if abs(p1[i]) >= EPSILON:
            first = i
            break
    last = BINS - 1
    for i in range(BINS - 1, first - 1, -1):
        if abs(p2[i]) >= EPSILON:
            last = i
            break
    return first, last


def _kapur(norm, p1, p2, first, last):
    populated = norm > 0
    threshold = -1
    maximum = 0.0
    for t in range(first, last + 1):
        back = norm[:t + 1][populated[:t + 1]] / p1[t]
        obj = norm[t + 1:][populated[t + 1:]] / p2[t]
        total = -np.sum(back * np.log(back)) - np.sum(obj * np.log(obj))
        if total > maximum:
            maximum = total
            threshold = t
    return threshold


def max_entropy(hist):
    norm, p1, p2 = _normalized(hist)
    first, last = _entropy_range(p1, p2)
    return _kapur(norm, p1, p2, first, last)


def renyi_entropy(hist):
    norm, p1, p2 = _normalized(hist)
    first, last = _entropy_range(p1, p2)

    t_star2 = max(_kapur(norm, p1, p2, first, last), 0)

    def renyi(alpha, back_term, obj_term):
        threshold = 0
        maximum = 0.0
        for t in range(first, last + 1):
            product = back_term(norm[:t + 1], p1[t]).sum() * obj_term(norm[t + 1:], p2[t]).sum()
            total = (np.log(product) if product > 0.0 else 0.0) / (1.0 - alpha)
            if total > maximum:
                maximum = total
                threshold = t
        return threshold

    t_star1 = renyi(0.5, lambda n, p: np.sqrt(n / p), lambda n, p: np.sqrt(n / p))
    t_star3 = renyi(2.0, lambda n, p: n * n / (p * p), lambda n, p: n * n / (p * p))

    t_star1, t_star2, t_star3 = sorted((t_star1, t_star2, t_star3))

    if abs(t_star1 - t_star2) <= 5:
        if abs(t_star2 - t_star3) <= 5:
            beta1, beta2, beta3 = 1, 2, 1
        else:
            beta1, beta2, beta3 = 0, 1, 3
    else:
        if abs(t_star2 - t_star3) <= 5:
            beta1, beta2, beta3 = 3, 1, 0
        else:
            beta1, beta2, beta3 = 1, 2, 1

    omega = p1[t_star3] - p1[t_star1]
    return int(t_star1 * (p1[t_star1] + 0.25 * omega * beta1)
               + 0.25 * t_star2 * omega * beta2
               + t_star3 * (p2[t_star3] + 0.25 * omega * beta3))


def mean(hist):
    return int(np.floor(np.dot(np.arange(BINS), hist) / hist.sum()))


def min_error(hist):
    levels = np.arange(BINS, dtype=np.float64)
    a = np.cumsum(hist)
    b = np.cumsum(levels * hist)
    c = np.cumsum(levels * levels * hist)

    threshold = mean(hist)
    previous = -2
    with np.errstate(all="ignore"):
        for _ in range(1000):
            if threshold == previous:
                break
            t = threshold
            mu = b[t] / a[t]
            nu = (b[-1] - b[t]) / (a[-1] - a[t])
            p = a[t] / a[-1]
            q = (a[-1] - a[t]) / a[-1]
            sigma2 = c[t] / a[t] - mu * mu
            tau2 = (c[-1] - c[t]) / (a[-1] - a[t]) - nu * nu

            w0 = 1.0 / sigma2 - 1.0 / tau2
            w1 = mu / sigma2 - nu / tau2
            w2 = mu * mu / sigma2 - nu * nu / tau2 + np.log10((sigma2 * q * q) / (tau2 * p * p))

            sqterm = w1 * w1 - w0 * w2
            if sqterm < 0:
                log.warning("MinError: not converging")
                break

            previous = threshold
            temp = (w1 + np.sqrt(sqterm)) / w0
            if not np.isfinite(temp) or not 0 <= temp < BINS - 1:
                log.warning("MinError: no valid threshold, keeping %d", previous)
                threshold = previous
            else:
                threshold = int(np.floor(temp))
    return threshold


def moments(hist):
    levels = np.arange(BINS, dtype=np.float64)
    histo = hist / hist.sum()

    m0 = 1.0
    m1 = np.dot(levels, histo)
    m2 = np.dot(levels ** 2, histo)
    m3 = np.dot(levels ** 3, histo)

    with np.errstate(all="ignore"):
        cd = m0 * m2 - m1 * m1
        c0 = (-m2 * m2 + m1 * m3) / cd
        c1 = (m0 * -m3 + m2 * m1) / cd
        z0 = 0.5 * (-c1 - np.sqrt(c1 * c1 - 4.0 * c0))
        z1 = 0.5 * (-c1 + np.sqrt(c1 * c1 - 4.0 * c0))
        # fraction of object pixels in the binary image
        p0 = (z1 - m1) / (z1 - z0)

    above = np.nonzero(np.cumsum(histo) > p0)[0]
    return int(above[0]) if len(above) else -1


def otsu(hist):
    total = hist.sum()
    sum1 = np.dot(np.arange(BINS), hist)

    sumB = 0.0
    wB = 0.0
    maximum = 0.0
    threshold = -1
    for t in range(BINS):
        wB += hist[t]
        if wB == 0:
            continue
        wF = total - wB
        if wF == 0:
            break
        sumB += t * hist[t]
        mB = sumB / wB
        mF = (sum1 - sumB) / wF
        between = wB * wF * (mB - mF) ** 2
        if between > maximum:
            maximum = between
            threshold = t
    return threshold


def percentile(hist, fraction=0.5):
    distance = np.abs(np.cumsum(hist) / hist.sum() - fraction)
    best = int(np.argmin(distance))
    return best if distance[best] < 1.0 else -1


def shanbhag(hist):
    norm, p1, p2 = _normalized(hist)
    first, last = _entropy_range(p1, p2)

    threshold = -1
    lowest = np.inf
    for t in range(first, last + 1):
        term = 0.5 / p1[t]
        back = -np.sum(norm[1:t + 1] * np.log(1.0 - term * p1[:t])) * term
        term = 0.5 / p2[t]
        obj = -np.sum(norm[t + 1:] * np.log(1.0 - term * p2[t + 1:])) * term
        total = abs(back - obj)
        if total < lowest:
            lowest = total
            threshold = t
    return threshold


def triangle(hist):
    data = hist.copy()
    n = len(data)
    populated = np.nonzero(data)[0]

    # the line ends at the first empty bin next to the data
    low = populated[0]
    if low > 0:
        low -= 1
    high = populated[-1]
    if high < n - 1:
        high += 1
    peak = int(np.argmax(data))

    inverted = (peak - low) < (high - peak)
    if inverted:
        data = data[::-1].copy()
        low = n - 1 - high
        peak = n - 1 - peak

    if low == peak:
        return low

    nx = data[peak]
    ny = low - peak
    d = np.sqrt(nx * nx + ny * ny)
    nx /= d
    ny /= d
    d = nx * low + ny * data[low]

    split = low
    candidates = np.arange(low + 1, peak + 1)
    distance = nx * candidates + ny * data[low + 1:peak + 1] - d
    if len(distance) and distance.max() > 0:
        split = int(candidates[np.argmax(distance)])
    split -= 1

    return n - 1 - split if inverted else split


def yen(hist):
    norm, p1, _ = _normalized(hist)
    p1_sq = np.cumsum(norm ** 2)
    p2_sq = np.zeros(BINS)
    p2_sq[:-1] = np.cumsum((norm[1:] ** 2)[::-1])[::-1]

    with np.errstate(divide="ignore", invalid="ignore"):
        squares = p1_sq * p2_sq
        spread = p1 * (1.0 - p1)
        crit = (-np.where(squares > 0.0, np.log(squares), 0.0)
                + 2 * np.where(spread > 0.0, np.log(spread), 0.0))
    best = int(np.argmax(crit))
    return best if crit[best] > 0.0 else -1


class AutoThresholder:
    METHODS = {
        "Default": ij_default,
        "Huang": huang,
        "Intermodes": intermodes,
        "IsoData": isodata,
        "Li": li,
        "MaxEntropy": max_entropy,
        "Mean": mean,
        "MinError": min_error,
        "Minimum": minimum,
        "Moments": moments,
        "Otsu": otsu,
        "Percentile": percentile,
        "RenyiEntropy": renyi_entropy,
        "Shanbhag": shanbhag,
        "Triangle": triangle,
        "Yen": yen,
    }
    ALIASES = {"MinError(I)": "MinError"}

    @classmethod
    def resolve(cls, method):
        name = cls.ALIASES.get(method, method)
        if name not in cls.METHODS:
            raise ValueError(
                f"Unknown threshold method '{method}'. Choose one of: {', '.join(cls.METHODS)}"
            )
        return cls.METHODS[name]

    def get_threshold(self, method, histogram):
        """Index of the last background bin of a 256 bin histogram."""
        select = self.resolve(method)

        hist = np.asarray(histogram, dtype=np.float64)
        if hist.shape != (BINS,):
            raise ValueError(f"Expected a histogram with {BINS} bins, got shape {hist.shape}")
        if (hist < 0).any():
            raise ValueError("Histogram counts must not be negative")

        populated = np.nonzero(hist)[0]
        if len(populated) < 2:
            return int(populated[0]) if len(populated) else 0

        threshold = select(hist)
        if threshold == -1:
            log.warning("%s found no threshold, using 0", method)
            threshold = 0
        log.debug("%s threshold at bin %d", method, threshold)
        return int(threshold)


METHODS = list(AutoThresholder.METHODS)
