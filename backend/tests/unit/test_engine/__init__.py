"""Engine tests"""
