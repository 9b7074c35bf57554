import pytest

from py_agile.beams import BeamSpec, ParticleKind, parse_beams, parse_energy, parse_particle
from py_agile.exceptions import ConfigurationError


@pytest.mark.parametrize("spec, expected", [
    ("p:900,pbar:900", ((ParticleKind.PROTON, 900.0), (ParticleKind.ANTIPROTON, 900.0))),
    ("LHC:14000", ((ParticleKind.PROTON, 7000.0), (ParticleKind.PROTON, 7000.0))),
    ("LHC:14T", ((ParticleKind.PROTON, 7000.0), (ParticleKind.PROTON, 7000.0))),
    ("LHC", ((ParticleKind.PROTON, 7000.0), (ParticleKind.PROTON, 7000.0))),
    ("tvt:1960", ((ParticleKind.PROTON, 980.0), (ParticleKind.ANTIPROTON, 980.0))),
    ("LEP:91.2GeV", ((ParticleKind.ELECTRON, 45.6), (ParticleKind.POSITRON, 45.6))),
    ("HERA:298", ((ParticleKind.ELECTRON, 26.7), (ParticleKind.PROTON, 820.0))),
    ("HERA:300", ((ParticleKind.ELECTRON, 27.5), (ParticleKind.PROTON, 820.0))),
    ("HERA:318", ((ParticleKind.ELECTRON, 27.5), (ParticleKind.PROTON, 920.0))),
    ("HERA:330", ((ParticleKind.ELECTRON, 27.5), (ParticleKind.PROTON, 920.0))),
    ("e-:27.5, p+:920", ((ParticleKind.ELECTRON, 27.5), (ParticleKind.PROTON, 920.0))),
    ("PROTON:7TeV,Proton:3.5TeV", ((ParticleKind.PROTON, 7000.0), (ParticleKind.PROTON, 3500.0))),
])
def test_parse_beams(spec, expected):
    beam_a, beam_b = parse_beams(spec)
    assert (beam_a.kind, beam_b.kind) == (expected[0][0], expected[1][0])
    assert beam_a.momentum == pytest.approx(expected[0][1])
    assert beam_b.momentum == pytest.approx(expected[1][1])
    assert isinstance(beam_a, BeamSpec)


def test_parse_beams_is_deterministic():
    assert parse_beams("HERA:318") == parse_beams("HERA:318")
    assert parse_beams("p:900,pbar:900") == parse_beams("p:900,pbar:900")


@pytest.mark.parametrize("spec", [
    "HERA:250",
    "HERA:331",
    "XFEL:100",
    "p:900",
    "p:900,p:900,p:900",
    "muon:100,p:100",
    "p:abc,p:100",
    "p:,p:100",
    "p:0,p:100",
])
def test_parse_beams_invalid(spec):
    with pytest.raises(ConfigurationError):
        parse_beams(spec)


@pytest.mark.parametrize("text, expected", [
    ("900", 900.0),
    ("14T", 14000.0),
    ("7TeV", 7000.0),
    ("500MeV", 0.5),
    ("1e3", 1000.0),
    ("2.5G", 2.5),
    ("100keV", 1e-4),
    ("900eV", 9e-7),
    ("900EV", 9e-7),
    ("900GeV", 900.0),
])
def test_parse_energy(text, expected):
    assert parse_energy(text) == pytest.approx(expected)


@pytest.mark.parametrize("name, kind", [
    ("p", ParticleKind.PROTON),
    ("p+", ParticleKind.PROTON),
    ("pbar", ParticleKind.ANTIPROTON),
    ("p-", ParticleKind.ANTIPROTON),
    ("antiproton", ParticleKind.ANTIPROTON),
    ("e", ParticleKind.ELECTRON),
    ("E-", ParticleKind.ELECTRON),
    ("e+", ParticleKind.POSITRON),
    ("Positron", ParticleKind.POSITRON),
])
def test_parse_particle_aliases(name, kind):
    assert parse_particle(name) is kind
